"""
Tumblr archiver – save a blog's posts or likes and their media to disk.

Supports:
  • Paginating a blog's posts (or likes) 20 at a time, one JSON file per page
  • Downloading photos, native videos and audio with a pool of workers
  • Re-running over an existing archive without downloading files twice
  • Collecting all media in one shared directory
"""
