from __future__ import annotations

import unittest
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from tagorm.core.migrate import create_index_sql, create_table_sql, migration_statements
from tagorm.core.parser import SchemaParser
from tagorm.core.tags import column
from tagorm.ports.db_api.dialects import MySQLDialect, PostgresDialect, SQLiteDialect


@dataclass
class Article:
    id: Optional[int] = column("primaryKey;autoIncrement", default=None)
    slug: str = column("size:80;unique", default="")
    author_id: int = column("index:idx_author_published", default=0)
    published_at: Optional[datetime] = column("index:idx_author_published", default=None)
    title: str = column("size:200;index", default="")
    code: str = column("uniqueIndex:uix_article_code;size:12", default="")


@dataclass
class Follow:
    follower_id: int = column("primaryKey", default=0)
    followee_id: int = column("primaryKey", default=0)
    created_at: Optional[datetime] = None


class CreateTableTests(unittest.TestCase):
    def setUp(self) -> None:
        parser = SchemaParser()
        self.article = parser.parse(Article)
        self.follow = parser.parse(Follow)

    def test_sqlite_table(self) -> None:
        self.assertEqual(
            create_table_sql(self.article, SQLiteDialect()),
            'CREATE TABLE IF NOT EXISTS "articles" (\n'
            '  "id" INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,\n'
            '  "slug" VARCHAR(80) NOT NULL UNIQUE,\n'
            '  "author_id" INTEGER NOT NULL,\n'
            '  "published_at" TIMESTAMP,\n'
            '  "title" VARCHAR(200) NOT NULL,\n'
            '  "code" VARCHAR(12) NOT NULL\n'
            ")",
        )

    def test_composite_primary_key_is_table_constraint(self) -> None:
        sql = create_table_sql(self.follow, PostgresDialect())

        self.assertEqual(
            sql,
            'CREATE TABLE IF NOT EXISTS "follows" (\n'
            '  "follower_id" BIGINT NOT NULL,\n'
            '  "followee_id" BIGINT NOT NULL,\n'
            '  "created_at" TIMESTAMP DEFAULT CURRENT_TIMESTAMP,\n'
            '  PRIMARY KEY ("follower_id", "followee_id")\n'
            ")",
        )

    def test_sqlite_index_statements(self) -> None:
        statements = migration_statements(self.article, SQLiteDialect())

        self.assertEqual(len(statements), 4)
        self.assertEqual(
            statements[1:],
            [
                'CREATE INDEX IF NOT EXISTS "idx_articles_title" ON "articles" ("title")',
                'CREATE INDEX IF NOT EXISTS "idx_author_published" ON "articles" '
                '("author_id", "published_at")',
                'CREATE UNIQUE INDEX IF NOT EXISTS "uix_article_code" ON "articles" ("code")',
            ],
        )

    def test_mysql_declares_indexes_inline(self) -> None:
        statements = migration_statements(self.article, MySQLDialect())

        self.assertEqual(len(statements), 1)
        sql = statements[0]
        self.assertIn("`id` BIGINT NOT NULL PRIMARY KEY AUTO_INCREMENT", sql)
        self.assertIn("KEY `idx_author_published` (`author_id`, `published_at`)", sql)
        self.assertIn("KEY `idx_articles_title` (`title`)", sql)
        self.assertIn("UNIQUE KEY `uix_article_code` (`code`)", sql)
        self.assertNotIn("uix_articles_slug", sql)
        self.assertTrue(sql.endswith("\n)"))

    def test_index_without_if_not_exists(self) -> None:
        index = next(i for i in self.article.indexes if i.name == "idx_author_published")
        self.assertEqual(
            create_index_sql(self.article, index, MySQLDialect()),
            "CREATE INDEX `idx_author_published` ON `articles` (`author_id`, `published_at`)",
        )

    def test_composite_table_has_no_index_statements(self) -> None:
        self.assertEqual(len(migration_statements(self.follow, SQLiteDialect())), 1)


if __name__ == "__main__":
    unittest.main()
