"""Nexus: team project workspace backend (projects, tasks, chat, notifications, presence)."""
