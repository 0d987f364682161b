"""Общие исключения приложения."""
