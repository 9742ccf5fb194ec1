"""Create secure links, signed contracts and audit logs.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


signature_type = sa.Enum("text", "upload", "draw", name="signaturetype")


def upgrade() -> None:
    op.create_table(
        "secure_links",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("otp", sa.String(length=6), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_secure_links_email", "secure_links", ["email"])
    op.create_index("ix_secure_links_expires_at", "secure_links", ["expires_at"])
    op.create_index("ix_secure_links_created_at", "secure_links", ["created_at"])
    op.create_index(
        "ix_secure_links_used_expires_at", "secure_links", ["used", "expires_at"]
    )

    op.create_table(
        "signed_contracts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "link_id",
            sa.String(length=32),
            sa.ForeignKey("secure_links.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("interpreter_name", sa.String(length=255), nullable=False),
        sa.Column("signature_type", signature_type, nullable=False),
        sa.Column("signature_data", sa.Text(), nullable=False),
        sa.Column("pdf_content", sa.Text(), nullable=False),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("link_id", name="uq_signed_contracts_link_id"),
    )
    op.create_index(
        "ix_signed_contracts_interpreter_name", "signed_contracts", ["interpreter_name"]
    )
    op.create_index("ix_signed_contracts_signed_at", "signed_contracts", ["signed_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("link_id", sa.String(length=32), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("details_encoding", sa.String(length=16), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_audit_logs_link_id", "audit_logs", ["link_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_link_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_signed_contracts_signed_at", table_name="signed_contracts")
    op.drop_index("ix_signed_contracts_interpreter_name", table_name="signed_contracts")
    op.drop_table("signed_contracts")
    signature_type.drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_secure_links_used_expires_at", table_name="secure_links")
    op.drop_index("ix_secure_links_created_at", table_name="secure_links")
    op.drop_index("ix_secure_links_expires_at", table_name="secure_links")
    op.drop_index("ix_secure_links_email", table_name="secure_links")
    op.drop_table("secure_links")
