"""create_sellers_and_product_mappings

Revision ID: 3f1c2a7d9b04
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c2a7d9b04"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "sellers",
        sa.Column("seller_id", sa.String(255), primary_key=True),
        sa.Column("access_token", sa.String(512), nullable=True),
        sa.Column("refresh_token", sa.String(512), nullable=True),
        sa.Column("connected_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_sellers_seller_id", "sellers", ["seller_id"])
    op.create_table(
        "product_mappings",
        sa.Column("product_id", sa.String(255), primary_key=True),
        sa.Column("seller_id", sa.String(255), nullable=False),
    )
    op.create_index("ix_product_mappings_product_id", "product_mappings", ["product_id"])
    op.create_index("ix_product_mappings_seller_id", "product_mappings", ["seller_id"])


def downgrade() -> None:
    op.drop_index("ix_product_mappings_seller_id", table_name="product_mappings")
    op.drop_index("ix_product_mappings_product_id", table_name="product_mappings")
    op.drop_table("product_mappings")
    op.drop_index("ix_sellers_seller_id", table_name="sellers")
    op.drop_table("sellers")
