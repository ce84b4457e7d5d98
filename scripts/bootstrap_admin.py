#!/usr/bin/env python3
"""Emit deterministic SQL that assigns a job-board role to an existing user."""

from __future__ import annotations

import argparse


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_sql(*, role: str, subject: str | None, email: str | None, sync_supabase: bool) -> str:
    role_value = _quote_sql(role)

    if subject:
        target_where = f"auth_subject_id = {_quote_sql(subject)}"
        auth_where = f"id = {_quote_sql(subject)}::uuid"
    else:
        assert email is not None
        target_where = f"email = {_quote_sql(email)}"
        auth_where = f"email = {_quote_sql(email)}"

    sql = f"""-- Job board role bootstrap SQL
-- Run this in a privileged Postgres session against the job board database.

update users
set role = {role_value}::user_role, updated_at = now()
where {target_where};
"""
    if sync_supabase:
        sql += f"""
update auth.users
set raw_app_meta_data = coalesce(raw_app_meta_data, '{{}}'::jsonb) || jsonb_build_object('role', {role_value})
where {auth_where};
"""
    return sql


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL to assign a job board role.")
    parser.add_argument(
        "--role",
        choices=["JOBSEEKER", "EMPLOYER", "ADMIN"],
        default="ADMIN",
        help="Role to store in users.role",
    )
    identity_group = parser.add_mutually_exclusive_group(required=True)
    identity_group.add_argument("--subject", help="Identity provider subject id (users.auth_subject_id)")
    identity_group.add_argument("--email", help="User email")
    parser.add_argument(
        "--sync-supabase",
        action="store_true",
        help="Also write the role into Supabase auth.users app metadata",
    )
    args = parser.parse_args()

    print(
        render_sql(
            role=args.role,
            subject=args.subject,
            email=args.email,
            sync_supabase=args.sync_supabase,
        )
    )


if __name__ == "__main__":
    main()
