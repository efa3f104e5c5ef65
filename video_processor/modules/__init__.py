"""Application modules.

- transcoding: video transcode queue, worker and control API
"""
