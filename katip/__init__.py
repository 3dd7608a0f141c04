# -- katip: ön muhasebe sunucu tarafı (kayıt + e-fatura köprüsü) --
__version__ = "0.1.0"
