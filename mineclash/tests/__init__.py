"""Tests for Mineclash."""
