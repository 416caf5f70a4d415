"""procwait 入口点。

支持: python -m procwait -- CMD ARGS...
"""

from .app import main

if __name__ == "__main__":
    main()
