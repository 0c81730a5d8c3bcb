from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from .models import Course, CourseProgress, Lesson
from .serializers import calculate_progress

User = get_user_model()


def make_user(email, role='member'):
    return User.objects.create_user(email=email, password='testpass123', role=role, name=email.split('@')[0])


class CourseAccessTest(APITestCase):

    def setUp(self):
        self.member = make_user('member@test.com')
        self.fp = make_user('fp@test.com', role='fp')

        self.basic = Course.objects.create(title='基礎講座', is_published=True, order=1)
        self.lessons = [
            Lesson.objects.create(course=self.basic, title=f'第{i}回', video_url=f'https://vimeo.com/{i}', order=i)
            for i in range(3)
        ]
        self.locked = Course.objects.create(title='FP講座', is_published=True, is_locked=True, order=2)
        self.locked_lesson = Lesson.objects.create(course=self.locked, title='秘密', video_url='https://vimeo.com/x')
        Course.objects.create(title='下書き', is_published=False)

    def test_progress_rounding(self):
        self.assertEqual(calculate_progress(1, 3), 33)
        self.assertEqual(calculate_progress(2, 3), 67)
        self.assertEqual(calculate_progress(0, 0), 0)

    def test_list_published_with_progress(self):
        CourseProgress.objects.create(user=self.member, course=self.basic, lesson=self.lessons[0], is_completed=True)
        self.client.force_authenticate(user=self.member)

        response = self.client.get('/api/courses/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        courses = response.data['courses']
        self.assertEqual([c['title'] for c in courses], ['基礎講座', 'FP講座'])
        self.assertEqual(courses[0]['progress'], 33)
        self.assertTrue(courses[0]['lessons'][0]['is_completed'])
        self.assertFalse(courses[0]['lessons'][1]['is_completed'])
        self.assertTrue(courses[1]['is_locked'])
        self.assertIsNone(courses[1]['lessons'][0]['video_url'])

    def test_locked_course_open_for_fp(self):
        self.client.force_authenticate(user=self.fp)
        response = self.client.get('/api/courses/')
        self.assertFalse(response.data['courses'][1]['is_locked'])

        response = self.client.get(f'/api/courses/{self.locked.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['lessons'][0]['video_url'], 'https://vimeo.com/x')

    def test_locked_course_detail_forbidden_for_member(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.get(f'/api/courses/{self.locked.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_progress_upsert(self):
        self.client.force_authenticate(user=self.member)
        lesson = self.lessons[1]

        response = self.client.post('/api/courses/progress/', {'lesson_id': lesson.id, 'is_completed': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNotNone(response.data['completed_at'])

        response = self.client.post('/api/courses/progress/', {'lesson_id': lesson.id, 'is_completed': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['completed_at'])
        self.assertEqual(CourseProgress.objects.filter(user=self.member, lesson=lesson).count(), 1)

    def test_progress_unknown_lesson(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.post('/api/courses/progress/', {'lesson_id': 9999, 'is_completed': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_progress_on_locked_course_forbidden(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.post(
            '/api/courses/progress/', {'lesson_id': self.locked_lesson.id, 'is_completed': True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_progress_list_filtered_by_course(self):
        CourseProgress.objects.create(user=self.fp, course=self.basic, lesson=self.lessons[0], is_completed=True)
        CourseProgress.objects.create(user=self.fp, course=self.locked, lesson=self.locked_lesson, is_completed=True)
        self.client.force_authenticate(user=self.fp)

        response = self.client.get(f'/api/courses/progress/?course_id={self.basic.id}')

        self.assertEqual(len(response.data['progress']), 1)

    def test_progress_list_rejects_non_numeric_course_id(self):
        self.client.force_authenticate(user=self.fp)
        response = self.client.get('/api/courses/progress/?course_id=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class AdminCourseTest(APITestCase):

    def setUp(self):
        self.admin = make_user('admin@test.com', role='admin')
        self.client.force_authenticate(user=self.admin)
        self.course = Course.objects.create(title='基礎講座')

    def test_member_forbidden(self):
        self.client.force_authenticate(user=make_user('member@test.com'))
        response = self.client.get('/api/courses/admin/courses/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_course(self):
        response = self.client.post(
            '/api/courses/admin/courses/',
            {'title': '実践講座', 'category': 'practical', 'level': 'intermediate', 'is_published': True},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Course.objects.filter(title='実践講座', category='practical').exists())

    def test_create_lessons_appends_order(self):
        url = f'/api/courses/admin/courses/{self.course.id}/lessons/'
        self.client.post(url, {'title': 'A'}, format='json')
        response = self.client.post(url, {'title': 'B', 'duration': 15}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order'], 1)
        self.assertEqual(len(self.client.get(url).data), 2)

    def test_reorder(self):
        a = Lesson.objects.create(course=self.course, title='A', order=0)
        b = Lesson.objects.create(course=self.course, title='B', order=1)

        response = self.client.post(
            f'/api/courses/admin/courses/{self.course.id}/lessons/reorder/',
            {'lesson_ids': [b.id, a.id]},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([lesson['title'] for lesson in response.data], ['B', 'A'])
        a.refresh_from_db()
        self.assertEqual(a.order, 1)

        response = self.client.get(f'/api/courses/admin/courses/{self.course.id}/lessons/')
        self.assertEqual([lesson['title'] for lesson in response.data], ['B', 'A'])

    def test_reorder_rejects_foreign_lessons(self):
        other = Course.objects.create(title='別コース')
        a = Lesson.objects.create(course=self.course, title='A')
        foreign = Lesson.objects.create(course=other, title='X')

        response = self.client.post(
            f'/api/courses/admin/courses/{self.course.id}/lessons/reorder/',
            {'lesson_ids': [a.id, foreign.id]},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['invalid_ids'], [foreign.id])

    def test_update_and_delete_lesson(self):
        lesson = Lesson.objects.create(course=self.course, title='A')

        response = self.client.patch(f'/api/courses/admin/lessons/{lesson.id}/', {'title': 'A2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        lesson.refresh_from_db()
        self.assertEqual(lesson.title, 'A2')

        response = self.client.delete(f'/api/courses/admin/lessons/{lesson.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Lesson.objects.exists())
