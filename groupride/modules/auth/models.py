# Supabase Auth
# This module uses Supabase's built-in authentication system.
# The public.users profile row (see groupride.modules.users.models) is created
# by a database trigger on auth.users insert, seeded from user_metadata.full_name.

"""
Supabase Auth provides:
- auth.sign_up() - Register new users (full_name stored in user_metadata)
- auth.sign_in_with_password() - Authenticate users
- auth.get_user() - Get current user from JWT token
- auth.sign_out() - Logout users
"""
