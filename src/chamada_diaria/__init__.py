"""Chamada Diária package.

This package is organized by feature modules (chamada, offline, sync, reports, ...)
with a thin Flask controller layer over service/repository layers. Attendance is
recorded locally first and drained to the hosted backend by the sync engine.
"""
