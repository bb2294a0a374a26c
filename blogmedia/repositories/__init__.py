"""
Repository package for data access layers.

Modules expose plain async functions over an `AsyncSession`:

    blogmedia.repositories.settings   string-keyed settings table
    blogmedia.repositories.media      media catalog and folder tree

None of them commit; transactions belong to the calling service.
"""
