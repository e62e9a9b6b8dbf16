"""Appointment and feedback sync between a local tracker and Supabase."""
