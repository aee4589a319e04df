"""
Convenience shim to run ShokarrFin from a source checkout.
Usage: python shokarrfin.py [--config PATH] COMMAND
"""

from shokarrfin.cli import main

if __name__ == "__main__":
    main()
