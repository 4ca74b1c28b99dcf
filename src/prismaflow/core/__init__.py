"""
prismaflow Core

Enumerations, schemas, exceptions and dedup key derivation.
"""
