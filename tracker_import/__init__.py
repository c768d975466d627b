"""Bulk CSV import pipeline for the issue tracker."""
