"""Scatter Vault Meta information.
   Scatter Vault keeps wallet private keys encrypted at rest under a
   password-derived seed and signs on their behalf.
"""
__title__ = 'scatter_vault'
__description__ = (
   'Scatter Vault keeps wallet private keys encrypted at rest '
   'under a password-derived seed.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/scatter-vault'
