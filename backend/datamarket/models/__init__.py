from .datasets import Dataset
from .transactions import Transaction
from .users import User

__all__ = ["Dataset", "Transaction", "User"]
