"""Create the mapping tables

Revision ID: 5c1f0e7a9b3d
Revises:
Create Date: 2025-03-10 11:20:41.512093

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c1f0e7a9b3d"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BASIC_TABLES = ("user_mapping", "tag_mapping", "media_mapping")
SCOPED_TABLES = ("category_mapping", "region_mapping", "taxonomy_mapping")
POST_TABLES = (
    "post_mapping_library",
    "post_mapping_page",
    "post_mapping",
    "post_mapping_opinion",
    "post_mapping_hub",
)


def _mapping_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("source_id", sa.Integer, nullable=False),
        sa.Column("target_id", sa.Integer, nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("migrated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _create_indexes(table: str) -> None:
    op.create_index(f"ix_{table}_source_id", table, ["source_id"], unique=True)
    op.create_index(f"ix_{table}_target_id", table, ["target_id"], unique=False)


def upgrade() -> None:
    for table in BASIC_TABLES:
        op.create_table(table, *_mapping_columns())
        _create_indexes(table)

    for table in SCOPED_TABLES:
        op.create_table(
            table, *_mapping_columns(), sa.Column("scope", sa.String(64), nullable=True)
        )
        _create_indexes(table)

    for table in POST_TABLES:
        op.create_table(table, *_mapping_columns())
        _create_indexes(table)


def downgrade() -> None:
    for table in (*POST_TABLES, *SCOPED_TABLES, *BASIC_TABLES):
        op.drop_index(f"ix_{table}_target_id", table_name=table)
        op.drop_index(f"ix_{table}_source_id", table_name=table)
        op.drop_table(table)
