"""Store VAT rates with three places and derived invoice totals unrounded

Revision ID: 20261019_amount_precision
Revises: 20261019_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_amount_precision"
down_revision = "20261019_initial"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("invoices", schema=None) as batch_op:
        batch_op.alter_column("vat", existing_type=sa.Numeric(5, 2), type_=sa.Numeric(6, 3), existing_nullable=False)
        batch_op.alter_column("vat_amount", existing_type=sa.Numeric(14, 2), type_=sa.Numeric(21, 7), existing_nullable=False)
        batch_op.alter_column("grand_total", existing_type=sa.Numeric(14, 2), type_=sa.Numeric(21, 7), existing_nullable=False)
        batch_op.alter_column("returned_amount", existing_type=sa.Numeric(14, 2), type_=sa.Numeric(21, 7), existing_nullable=False)


def downgrade():
    with op.batch_alter_table("invoices", schema=None) as batch_op:
        batch_op.alter_column("returned_amount", existing_type=sa.Numeric(21, 7), type_=sa.Numeric(14, 2), existing_nullable=False)
        batch_op.alter_column("grand_total", existing_type=sa.Numeric(21, 7), type_=sa.Numeric(14, 2), existing_nullable=False)
        batch_op.alter_column("vat_amount", existing_type=sa.Numeric(21, 7), type_=sa.Numeric(14, 2), existing_nullable=False)
        batch_op.alter_column("vat", existing_type=sa.Numeric(6, 3), type_=sa.Numeric(5, 2), existing_nullable=False)
