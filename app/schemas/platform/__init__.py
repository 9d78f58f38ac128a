# app/schemas/platform/__init__.py
from .stripe import RemoteProduct, RemotePrice, TaxCode
