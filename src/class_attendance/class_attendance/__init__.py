"""Class Attendance package.

Organized by feature modules (sessions, roster, excuses, reports) with a thin
Flask controller layer on top of service/repository layers.
"""
