from importlib import import_module

modules = [
    'auth',
    'users',
    'departments',
    'projects',
    'proposals',
    'invitations',
    'applications',
    'reports',
    'covenant',
    'audit',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
