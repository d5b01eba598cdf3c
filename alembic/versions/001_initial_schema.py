"""Initial job board schema

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-16 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

BigIntPK = sa.BigInteger().with_variant(sa.Integer(), 'sqlite')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create principals, profiles, role profiles, jobs, applications and site content."""
    op.create_table(
        'principals',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('verification_code_hash', sa.String(length=64), nullable=True),
        sa.Column('verification_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('signup_data', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_principals_email', 'principals', ['email'], unique=True)

    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('full_name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['id'], ['principals.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'])
    op.create_index('ix_profiles_role', 'profiles', ['role'])
    op.create_index('ix_profiles_created_at', 'profiles', ['created_at'])

    op.create_table(
        'candidate_profiles',
        sa.Column('id', BigIntPK, nullable=False, autoincrement=True),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('work_authorization', sa.String(length=20), nullable=True),
        sa.Column('years_of_experience', sa.Integer(), nullable=True),
        sa.Column('resume_url', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'years_of_experience IS NULL OR years_of_experience >= 0',
            name='ck_candidate_experience_non_negative',
        ),
    )
    op.create_index('ix_candidate_profiles_user_id', 'candidate_profiles', ['user_id'], unique=True)

    op.create_table(
        'employer_profiles',
        sa.Column('id', BigIntPK, nullable=False, autoincrement=True),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=False),
        sa.Column('company_website', sa.String(length=500), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_employer_profiles_user_id', 'employer_profiles', ['user_id'], unique=True)
    op.create_index('ix_employer_profiles_company_name', 'employer_profiles', ['company_name'])

    op.create_table(
        'jobs',
        sa.Column('id', BigIntPK, nullable=False, autoincrement=True),
        sa.Column('employer_id', BigIntPK, nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=False),
        sa.Column('job_type', sa.String(length=20), nullable=False, server_default='Full-time'),
        sa.Column('salary_min', sa.Integer(), nullable=True),
        sa.Column('salary_max', sa.Integer(), nullable=True),
        sa.Column('skills_required', sa.JSON(), nullable=False),
        sa.Column('experience_required', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('work_authorization', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['employer_id'], ['employer_profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'salary_min IS NULL OR salary_max IS NULL OR salary_min <= salary_max',
            name='ck_job_salary_range',
        ),
        sa.CheckConstraint('experience_required >= 0', name='ck_job_experience_non_negative'),
    )
    op.create_index('ix_jobs_employer_id', 'jobs', ['employer_id'])
    op.create_index('ix_jobs_is_active', 'jobs', ['is_active'])
    op.create_index('idx_job_active_created', 'jobs', ['is_active', 'created_at'])
    op.create_index('idx_job_employer_created', 'jobs', ['employer_id', 'created_at'])

    op.create_table(
        'applications',
        sa.Column('id', BigIntPK, nullable=False, autoincrement=True),
        sa.Column('job_id', BigIntPK, nullable=False),
        sa.Column('candidate_id', BigIntPK, nullable=False),
        sa.Column('cover_letter', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('applied_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['candidate_id'], ['candidate_profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('candidate_id', 'job_id', name='uq_application_candidate_job'),
    )
    op.create_index('ix_applications_status', 'applications', ['status'])
    op.create_index('idx_application_candidate', 'applications', ['candidate_id'])
    op.create_index('idx_application_job', 'applications', ['job_id'])

    op.create_table(
        'site_content',
        sa.Column('id', BigIntPK, nullable=False, autoincrement=True),
        sa.Column('section_key', sa.String(length=100), nullable=False),
        sa.Column('content', sa.JSON(), nullable=False),
        sa.Column('last_updated_by', sa.String(length=36), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['last_updated_by'], ['profiles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('section_key', name='uq_site_content_section_key'),
    )


def downgrade() -> None:
    """Drop every job board table."""
    op.drop_table('site_content')
    op.drop_index('idx_application_job', table_name='applications')
    op.drop_index('idx_application_candidate', table_name='applications')
    op.drop_index('ix_applications_status', table_name='applications')
    op.drop_table('applications')
    op.drop_index('idx_job_employer_created', table_name='jobs')
    op.drop_index('idx_job_active_created', table_name='jobs')
    op.drop_index('ix_jobs_is_active', table_name='jobs')
    op.drop_index('ix_jobs_employer_id', table_name='jobs')
    op.drop_table('jobs')
    op.drop_index('ix_employer_profiles_company_name', table_name='employer_profiles')
    op.drop_index('ix_employer_profiles_user_id', table_name='employer_profiles')
    op.drop_table('employer_profiles')
    op.drop_index('ix_candidate_profiles_user_id', table_name='candidate_profiles')
    op.drop_table('candidate_profiles')
    op.drop_index('ix_profiles_created_at', table_name='profiles')
    op.drop_index('ix_profiles_role', table_name='profiles')
    op.drop_index('ix_profiles_email', table_name='profiles')
    op.drop_table('profiles')
    op.drop_index('ix_principals_email', table_name='principals')
    op.drop_table('principals')
