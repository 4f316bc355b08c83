"""
ChoreQuest Test Suite
=====================

Test Organization
-----------------
- tests/unit/          : Pure helpers and services against a temporary SQLite file
- tests/integration/   : DatabaseService and the runner end to end
- tests/factories.py   : Seed and query helpers

Testing Philosophy
------------------
- Freeze time by injecting `now` into services
- Simulate store failures by patching repositories to raise OperationalError
- Follow AAA pattern: Arrange, Act, Assert
"""
