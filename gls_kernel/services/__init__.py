"""Kernel services: sequence allocation and the audit log writer."""
