# Supabase tables: groups, user_group
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

groups:
- id: uuid (primary key)
- name: text (not null, unique)
- created_at: timestamp (default: now())

user_group:
- user_id: uuid (foreign key to users.id, not null)
- group_id: uuid (foreign key to groups.id, on delete cascade)
- primary key on (user_id, group_id)

rides.group_id references groups.id and is optional; a group only tags
rides and riders, it carries no ordering or permissions of its own.
"""
