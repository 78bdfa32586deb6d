"""Realtime subscription manager service for Supabase Realtime."""
