"""ORM schema for the ChoreQuest store."""
