"""
Punto de entrada: python -m keeltool
"""

from keeltool.cli import main

if __name__ == "__main__":
    main()
