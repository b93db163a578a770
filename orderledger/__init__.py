"""orderledger: append-only versioned records with draft retention.

Every change to a record is a new immutable version. Drafts may be
promoted to final versions; superseded drafts are reclaimed by a
scheduled purge that keeps only the highest draft per record.
"""

__version__ = "0.1.0"
