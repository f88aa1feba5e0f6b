"""Operator command-line tools for fileready."""
