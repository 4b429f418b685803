import sys
from datetime import datetime

import rich.console


RICH_CONSOLE = rich.console.Console(highlight=False)
RICH_ERROR_CONSOLE = rich.console.Console(stderr=True, highlight=False)


#============================================
def pick_style(message: str) -> str:
	"""
	Choose a console style from the message text.
	"""
	lower = message.lower()
	if ("failed" in lower) or ("error" in lower):
		return "bold red"
	if ("warning" in lower) or ("rate limit" in lower) or ("fallback" in lower) or ("skipping" in lower):
		return "yellow"
	if ("wrote " in lower) or ("collected" in lower):
		return "green"
	return "cyan"


#============================================
def format_line(job_name: str, message: str) -> str:
	"""
	Prefix one message with the job name and wall-clock time.
	"""
	now_text = datetime.now().strftime("%H:%M:%S")
	return f"[{job_name} {now_text}] {message}"


#============================================
def make_logger(job_name: str):
	"""
	Build the log_step callable for one job.
	"""
	def log_step(message: str) -> None:
		line = format_line(job_name, message)
		RICH_CONSOLE.print(line, style=pick_style(message), markup=False, soft_wrap=True)
	return log_step


#============================================
def make_warning_logger(log_fn):
	"""
	Wrap a log_step callable so every line reads as a warning.
	"""
	def log_warning(message: str) -> None:
		log_fn(f"WARNING: {message}")
	return log_warning


#============================================
def log_error(job_name: str, message: str) -> None:
	"""
	Print one fatal error line to standard error.
	"""
	line = format_line(job_name, f"ERROR: {message}")
	RICH_ERROR_CONSOLE.print(line, style="bold red", markup=False, soft_wrap=True)
	sys.stderr.flush()
