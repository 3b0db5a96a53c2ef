import tkinter as tk
import multiprocessing
from UIs.app import StatNotesApp


def main():
    try:
        print("Starting GUI...")
        root = tk.Tk()
        StatNotesApp(root)
        print("GUI ready. Entering mainloop...")
        root.mainloop()
    except Exception as e:
        print("ERROR:", str(e))
        import traceback
        traceback.print_exc()


if __name__ == "__main__":
    # Required for multiprocessing on Windows
    multiprocessing.freeze_support()
    main()
