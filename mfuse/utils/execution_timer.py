from contextlib import ContextDecorator
import time


class ExecutionTimer(ContextDecorator):
    def __enter__(self):
        self.start_time = time.perf_counter()
        self.end_time = None
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.end_time = time.perf_counter()
        self.execution_time = self.end_time - self.start_time

    def get_execution_time(self):
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return end - self.start_time

    def elapsed_ms(self) -> float:
        return self.get_execution_time() * 1000.0
