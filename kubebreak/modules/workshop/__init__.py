"""
Workshop Module - Black Box Interface

Purpose: Workshop manager operations (deploy, status, test, break, clean, reset)
Interface: WorkshopManager, interactive_menu()
Hidden: Ordering of kubectl calls, readiness waits, HTTP probing, CoreDNS restore

The menu is a thin layer over WorkshopManager; the CLI calls the same methods.
"""

from .manager import COMMANDS_CHEAT_SHEET, LABELLED_KINDS, WorkshopManager
from .menu import interactive_menu

__all__ = ["COMMANDS_CHEAT_SHEET", "LABELLED_KINDS", "WorkshopManager", "interactive_menu"]
