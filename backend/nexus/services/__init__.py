"""Application services: accounts, projects, tasks, chat, notifications, analytics, uploads."""
