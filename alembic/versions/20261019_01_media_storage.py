"""
Media storage schema.

- settings: typed key/value rows (storage configuration + resolved credentials).
- media_files: one catalog row per original object in the media bucket.
- media_folders: self-referential navigation tree for the media library.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic.
revision = "20261019_01_media_storage"
down_revision = None
branch_labels = None
depends_on = None


JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    setting_type = sa.Enum("text", "json", name="setting_type")
    media_file_type = sa.Enum("image", "video", "document", "other", name="media_file_type")

    # --- settings ---
    op.create_table(
        "settings",
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("type", setting_type, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("key", name="pk_settings"),
    )

    # --- media_files ---
    op.create_table(
        "media_files",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("storage_key", sa.String(length=1024), nullable=False),
        sa.Column("bucket", sa.String(length=255), nullable=False),
        sa.Column("mime_type", sa.String(length=127), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), server_default=sa.text("0"), nullable=False),
        sa.Column("file_type", media_file_type, nullable=False),
        sa.Column("folder_path", sa.String(length=512), server_default="/documents", nullable=False),
        sa.Column("folder_overridden", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("thumbnail_key", sa.String(length=1024), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("original_name", sa.String(length=512), nullable=False),
        sa.Column("alt_text", sa.Text(), nullable=True),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("tags", JSON_TYPE, nullable=True),
        sa.Column("uploaded_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_media_files"),
        sa.UniqueConstraint("storage_key", name="uq_media_files_storage_key"),
        sa.CheckConstraint("size_bytes >= 0", name="ck_media_files_size_nonneg"),
        sa.CheckConstraint(
            "(width IS NULL OR width > 0) AND (height IS NULL OR height > 0)",
            name="ck_media_files_dims_positive",
        ),
    )
    op.create_index("ix_media_files_file_type", "media_files", ["file_type"], unique=False)
    op.create_index("ix_media_files_folder_path", "media_files", ["folder_path"], unique=False)
    op.create_index("ix_media_files_created_at", "media_files", ["created_at"], unique=False)

    # --- media_folders ---
    op.create_table(
        "media_folders",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("path", sa.String(length=512), nullable=False),
        sa.Column("parent_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_media_folders"),
        sa.ForeignKeyConstraint(
            ["parent_id"],
            ["media_folders.id"],
            name="fk_media_folders_parent_id_media_folders",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("path", name="uq_media_folders_path"),
    )
    op.create_index("ix_media_folders_parent_id", "media_folders", ["parent_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_media_folders_parent_id", table_name="media_folders")
    op.drop_table("media_folders")

    op.drop_index("ix_media_files_created_at", table_name="media_files")
    op.drop_index("ix_media_files_folder_path", table_name="media_files")
    op.drop_index("ix_media_files_file_type", table_name="media_files")
    op.drop_table("media_files")

    op.drop_table("settings")

    bind = op.get_bind()
    sa.Enum(name="media_file_type").drop(bind, checkfirst=True)
    sa.Enum(name="setting_type").drop(bind, checkfirst=True)
