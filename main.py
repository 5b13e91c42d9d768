import sys

from Core.shell import main_loop


def main():
    sys.exit(main_loop())


if __name__ == "__main__":
    main()
