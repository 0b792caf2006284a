"""Add the images repaired flag to post mappings

Revision ID: 8e2d4b6a1f07
Revises: 5c1f0e7a9b3d
Create Date: 2025-04-02 09:05:12.771420

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8e2d4b6a1f07"
down_revision: Union[str, None] = "5c1f0e7a9b3d"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

POST_TABLES = (
    "post_mapping_library",
    "post_mapping_page",
    "post_mapping",
    "post_mapping_opinion",
    "post_mapping_hub",
)


def upgrade() -> None:
    for table in POST_TABLES:
        op.add_column(
            table,
            sa.Column(
                "images_repaired",
                sa.Boolean,
                nullable=False,
                server_default=sa.false(),
            ),
        )


def downgrade() -> None:
    for table in POST_TABLES:
        with op.batch_alter_table(table) as batch_op:
            batch_op.drop_column("images_repaired")
