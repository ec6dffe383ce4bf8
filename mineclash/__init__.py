"""
Mineclash - Multiplayer Minesweeper Session Engine

An authoritative server for competitive minesweeper. Clients never see the
mine layout; the server generates boards, validates every reveal and sends
back only what each viewer is allowed to see:
- Lobbies with optional passwords
- Classic (turn-based, shared board) and race (simultaneous) modes
- Version-checked session storage (in memory or SQL)
- A reaper for idle and abandoned sessions
"""

__version__ = "0.1.0"
