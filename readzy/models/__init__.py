from .db import Base, Book, User

__all__ = ["Base", "Book", "User"]
