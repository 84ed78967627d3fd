"""
Entrypoint module, in case you use `python -mtbsim`.
"""

from tbsim.cli import main

if __name__ == "__main__":
    main()
