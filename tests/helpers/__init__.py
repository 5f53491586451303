"""Test helpers for renovater."""
