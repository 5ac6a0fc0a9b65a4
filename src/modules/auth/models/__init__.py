from .user import User, DPA_ROLE

__all__ = ['User', 'DPA_ROLE']
