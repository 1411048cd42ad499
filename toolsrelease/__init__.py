# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Release tooling for the MongoDB database tools."""

__version__ = "0.1.0"
