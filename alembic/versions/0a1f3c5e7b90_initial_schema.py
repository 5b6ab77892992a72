"""Initial schema: users, campuses, communities, posts, comments, votes

Revision ID: 0a1f3c5e7b90
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0a1f3c5e7b90"
down_revision = None
branch_labels = None
depends_on = None

user_role_type = sa.Enum("STUDENT", "EMPLOYEE", "BOTH", name="user_role_type")
vote_type = sa.Enum("UP", "DOWN", name="vote_type")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("full_name", sa.String(100), nullable=True),
        sa.Column("user_name", sa.String(30), nullable=True, unique=True),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("primary_role", user_role_type, nullable=True),
        sa.Column("nim", sa.String(20), nullable=True, unique=True),
        sa.Column("student_major", sa.String(100), nullable=True),
        sa.Column("student_batch", sa.String(10), nullable=True),
        sa.Column("employee_id", sa.String(20), nullable=True, unique=True),
        sa.Column("employee_department", sa.String(100), nullable=True),
        sa.Column("bio_description", sa.Text(), nullable=True),
        sa.Column(
            "occupation_roles", postgresql.JSONB(), nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "custom_links", postgresql.JSONB(), nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("profile_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_updated_at", "users", ["updated_at"])

    op.create_table(
        "user_campuses",
        sa.Column(
            "user_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("campus", sa.String(50), primary_key=True),
    )
    op.create_index("ix_user_campuses_campus", "user_campuses", ["campus"])

    op.create_table(
        "communities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "owner_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "posts",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("text_content", postgresql.JSONB(), nullable=True),
        sa.Column(
            "community_name", sa.String(50),
            sa.ForeignKey("communities.name", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column(
            "user_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("vote_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_posts_created_at", "posts", ["created_at"])
    op.create_index("ix_posts_community_created", "posts", ["community_name", "created_at"])
    op.create_index("ix_posts_user_id", "posts", ["user_id"])

    op.create_table(
        "comments",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column(
            "post_id", sa.String(32),
            sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "user_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_comments_post_id", "comments", ["post_id"])
    op.create_index("ix_comments_user_id", "comments", ["user_id"])

    op.create_table(
        "votes",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "user_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column(
            "post_id", sa.String(32),
            sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("vote_type", vote_type, nullable=False),
        sa.UniqueConstraint("user_id", "post_id", name="uq_votes_user_post"),
    )
    op.create_index("ix_votes_post_id", "votes", ["post_id"])


def downgrade() -> None:
    op.drop_table("votes")
    op.drop_table("comments")
    op.drop_table("posts")
    op.drop_table("communities")
    op.drop_table("user_campuses")
    op.drop_table("users")
    vote_type.drop(op.get_bind(), checkfirst=True)
    user_role_type.drop(op.get_bind(), checkfirst=True)
