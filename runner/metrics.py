import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class PageMetric:
    page_num: int
    start_time: float
    end_time: Optional[float] = None
    fields: int = 0
    status_code: Optional[int] = None
    error: Optional[str] = None


@dataclass
class SessionMetrics:
    start_time: float = field(default_factory=time.time)
    pages: dict[int, PageMetric] = field(default_factory=dict)

    def start_page(self, num: int) -> None:
        self.pages[num] = PageMetric(
            page_num=num,
            start_time=time.time()
        )

    def end_page(
        self,
        num: int,
        fields: int = 0,
        status_code: Optional[int] = None,
        error: Optional[str] = None
    ) -> None:
        if num in self.pages:
            self.pages[num].end_time = time.time()
            self.pages[num].fields = fields
            self.pages[num].status_code = status_code
            self.pages[num].error = error

    def get_summary(self) -> dict:
        return {
            "total_pages": len(self.pages),
            "total_fields": sum(p.fields for p in self.pages.values()),
            "total_time_seconds": time.time() - self.start_time,
            "per_page": [
                {
                    "num": p.page_num,
                    "time_seconds": round((p.end_time or time.time()) - p.start_time, 2),
                    "fields": p.fields,
                    "status_code": p.status_code,
                    "error": p.error
                }
                for p in sorted(self.pages.values(), key=lambda x: x.page_num)
            ]
        }


def summarize(outcomes: list, winner: Optional[int], elapsed: float) -> dict:
    """Roll worker outcomes up into one pool summary."""
    succeeded = [o for o in outcomes if o.status.value == "succeeded"]
    return {
        "workers": len(outcomes),
        "winner": winner,
        "succeeded": len(succeeded),
        "failed": len(outcomes) - len(succeeded),
        "total_time_seconds": elapsed,
        "per_worker": [
            {
                "id": o.worker_id,
                "status": o.status.value,
                "pages": o.pages,
                "error": o.error
            }
            for o in sorted(outcomes, key=lambda x: x.worker_id)
        ]
    }


def print_summary(summary: dict) -> None:
    print(f"\n{'='*50}")
    print(f"QUIZ RUNNER - RESULTS")
    print(f"{'='*50}")
    if summary["winner"] is not None:
        print(f"Passed by worker {summary['winner']}")
    else:
        print("No worker passed the quiz")
    print(f"Workers: {summary['succeeded']}/{summary['workers']} succeeded")
    print(f"Total time: {summary['total_time_seconds']:.1f}s")
    for w in summary["per_worker"]:
        suffix = f" ({w['error']})" if w["error"] else ""
        print(f"  worker {w['id']}: {w['status']} after {w['pages']} pages{suffix}")
    print(f"{'='*50}\n")
