# Supabase tables: users, auth.users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

users:
- id: uuid (primary key, references auth.users.id)
- email: text (unique, not null) - synced from auth.users
- name: text (nullable) - legacy display name
- full_name: text (nullable)
- avatar_url: text (nullable) - public URL in the avatars storage bucket
- social_url: text (nullable)
- strava_url: text (nullable)
- notifications_enabled: boolean (default: true)
- notification_radius_km: integer (default: 25)
- notification_bike_types: text[] (default: {Road,MTB})
- push_subscription: jsonb (nullable) - browser PushSubscription.toJSON()
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

Row-level policy: a user may update only their own row.
"""
