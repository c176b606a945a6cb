"""
Workflow Kernel

Permission-resolution and execution core for content-approval workflows:
- Action/transition graphs bound to content records
- Append-only action history per running instance
- Newest-first resolution of a member's relevant assignment
- Per-member filtering of legal transitions
"""

__version__ = "0.1.0"
