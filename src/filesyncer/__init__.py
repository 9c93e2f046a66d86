"""FileSyncer - Real-time one-way file synchronization over rsync/scp."""

__version__ = "1.0.0"
